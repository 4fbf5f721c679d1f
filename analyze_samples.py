
import sys
import argparse
from pathlib import Path

from autostudio.engines.studio.analysis import analyze_subject_bounds
from autostudio.engines.studio.buffer import PixelBuffer
from autostudio.engines.studio.classifier import classify_photo_mode
from autostudio.engines.studio.placement import solve_placement
from autostudio.engines.studio.shadow import pad_for_placement

DEFAULT_SAMPLES = [
    "samples/sample-exterior-1.png",
    "samples/sample-exterior-2.png",
    "samples/sample-interior-1.png",
]


def analyze_sample(path: Path, target_pct: float):
    buffer = PixelBuffer.decode(path.read_bytes())
    analysis = analyze_subject_bounds(buffer)
    classification = classify_photo_mode(analysis)

    padded, padding = pad_for_placement(buffer)
    plan = solve_placement(
        analysis.offset(padding),
        padded.width,
        padded.height,
        classification.mode,
        target_pct=target_pct,
    )
    return classification, plan


def analyze_samples(samples, target_pct: float = 0.82):
    print(f"Analyzing {len(samples)} cutouts (target width {target_pct:.2f})...")

    results = []
    for sample in samples:
        path = Path(sample)
        try:
            classification, plan = analyze_sample(path, target_pct)
        except (OSError, ValueError) as e:
            print(f"{sample}: skipped ({e})")
            continue

        hint = " interiorHint" if classification.interior_hint else ""
        print(
            f"{sample}: mode={classification.mode.value} "
            f"widthPct={plan.width_pct:.3f} scale={plan.scale:.3f}{hint}"
        )
        results.append((sample, classification, plan))

    exterior = [plan.width_pct for _, c, plan in results if c.mode.value == "exterior"]
    if exterior:
        print(f"\nExterior widthPct range: {min(exterior):.3f} - {max(exterior):.3f}")
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Print mode, widthPct and scale for background-removed sample cutouts"
    )
    parser.add_argument("samples", nargs="*", default=DEFAULT_SAMPLES, help="RGBA cutout files")
    parser.add_argument("--target", type=float, default=0.82, help="Target car width fraction")
    args = parser.parse_args()

    results = analyze_samples(args.samples, args.target)
    return 0 if results else 1


if __name__ == "__main__":
    sys.exit(main())
