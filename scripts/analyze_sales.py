#!/usr/bin/env python
"""
Analyze a parts sales export and print the recommended matrix.

Usage:
    python scripts/analyze_sales.py sales.csv
    python scripts/analyze_sales.py sales.csv --target-kind margin --target 62
"""
import argparse
import logging
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from matrix_optimizer.engine import MatrixOptimizer, TargetSpec, IngestError


def main():
    parser = argparse.ArgumentParser(description="Recommend price matrix multipliers from sales data")
    parser.add_argument('csv_path', type=Path)
    parser.add_argument('--target-kind', choices=TargetSpec.KINDS, default='percent')
    parser.add_argument('--target', type=float, default=5.0)
    parser.add_argument('-v', '--verbose', action='store_true')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.csv_path.exists():
        print(f"ERROR: {args.csv_path} not found")
        sys.exit(1)

    print("=" * 60)
    print("PRICE MATRIX OPTIMIZATION")
    print("=" * 60)
    print()

    optimizer = MatrixOptimizer()
    target = TargetSpec(kind=args.target_kind, value=args.target)

    print(f"[1/2] Reading {args.csv_path.name}...")
    try:
        ingest, analysis, result = optimizer.run(args.csv_path.read_text(encoding='utf-8-sig'), target)
    except IngestError as e:
        print(f"\n❌ {e.message}")
        sys.exit(1)

    print(f"  Parts loaded: {ingest.record_count}")
    if ingest.skipped_count:
        print(f"  Rows skipped: {ingest.skipped_count}")
    if analysis.unclassified_count:
        print(f"  Outside every tier: {analysis.unclassified_count}")
    print(f"  Current margin: {analysis.current_margin:.1f}%")

    print()
    print("[2/2] Solving...")
    print()
    print(result.to_frame().to_string(index=False))

    print()
    print("=" * 60)
    print("Summary:")
    print(f"  Current Profit:   ${result.current_profit:,.2f}")
    print(f"  Target Profit:    ${result.target_profit:,.2f}")
    print(f"  Projected Profit: ${result.projected_profit:,.2f}")
    print(f"  Profit Increase:  ${result.profit_increase:,.2f} ({result.percent_increase:+.1f}%)")
    if not result.converged:
        print(f"  ⚠️ Target not fully reached (gap ${result.residual_gap:,.2f} after {result.iterations} iterations)")


if __name__ == "__main__":
    main()
