"""Download segmentation models for bundling in release builds.

Downloads every model in the segmentation registry to
packaging/bundled_models/ so a packaged build can start background
effects without network access.
"""

from pathlib import Path

from livescene.segmentation.models import MODEL_REGISTRY, ModelManager


def main():
    script_dir = Path(__file__).resolve().parent
    manager = ModelManager(cache_dir=script_dir / "bundled_models")

    print("Downloading segmentation models...")
    for name in MODEL_REGISTRY:
        if manager.is_cached(name):
            path = manager.model_path(name)
            print(f"  Already exists: {path} ({path.stat().st_size / 1024:.0f}KB)")
            continue
        print(f"  Downloading: {name} ...")
        path = manager.ensure_model(name)
        print(f"  Done: {path.stat().st_size / 1024:.0f}KB")

    total = sum(manager.model_path(name).stat().st_size for name in MODEL_REGISTRY)
    print(f"\nAll models downloaded ({total / 1024:.0f}KB total).")


if __name__ == "__main__":
    main()
