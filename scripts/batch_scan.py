import argparse
import logging
import os

from backend.app import config
from backend.ml_model.artifacts import ArtifactStore
from backend.ml_model.batch import read_input_file, scan_batch
from backend.ml_model.classifier import JoblibInferenceEngine, PhishingScanPipeline


def main(argv=None):
    parser = argparse.ArgumentParser(description="Scan a .csv or .txt file of emails for phishing.")
    parser.add_argument("file", nargs="?", help="Path to a .csv export or a .txt file (one body per line)")
    parser.add_argument("--artifacts", default=config.ARTIFACT_DIR, help="Directory holding the exported artifacts")
    parser.add_argument("--model", default=config.MODEL_PATH, help="Path to the joblib-dumped classifier")
    parser.add_argument("--output", help="Optional .csv path for the results")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))

    input_path = args.file or input("📂 Enter path to your .csv or .txt file: ").strip()
    if not os.path.isfile(input_path):
        print("❌ File not found. Please check the path and try again.")
        return 1

    store = ArtifactStore(args.artifacts)
    pipeline = PhishingScanPipeline(store, JoblibInferenceEngine(args.model, input_name=config.MODEL_INPUT_NAME))

    messages = read_input_file(input_path)
    results = scan_batch(pipeline, messages)

    print("\n📦 Batch Scan Results:\n")
    for i, row in enumerate(results.itertuples(index=False), 1):
        if row.label:
            print(f"{i}. [{row.subject[:60]}] → {row.label}")
        else:
            print(f"{i}. [{row.subject[:60]}] → failed at {row.stage}: {row.error}")

    if args.output:
        results.to_csv(args.output, index=False)
        print(f"\n✅ Results written to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
