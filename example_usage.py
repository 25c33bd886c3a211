"""
Example usage of Product Staging

This script demonstrates how to use the API programmatically
"""

import json
from pathlib import Path

import httpx


def composite_example(backdrop: Path, subject: Path, clean: Path = None):
    """
    Example: Render one composite via API
    """
    # API endpoint
    api_url = "http://localhost:8000"

    # Check if API is running
    try:
        response = httpx.get(f"{api_url}/health")
        print(f"✓ API Status: {response.json()['status']}")
    except httpx.ConnectError:
        print("✗ Error: API is not running. Please start with: python main.py")
        return

    print("\nCompositing...")

    files = {
        "backdrop": (backdrop.name, backdrop.read_bytes(), "image/png"),
        "shadowed": (subject.name, subject.read_bytes(), "image/png"),
    }
    if clean is not None:
        files["clean"] = (clean.name, clean.read_bytes(), "image/png")

    data = {
        "x": 0.5,
        "y": 0.85,
        "scale": 0.8,
        "aspect_ratio": "4:3",
        "width": 600,
        "blur_background": True,
    }

    response = httpx.post(f"{api_url}/composite", files=files, data=data, timeout=60)

    if response.status_code == 200:
        output_path = Path("composite_preview.png")
        output_path.write_bytes(response.content)
        print(f"\n✓ Success! Saved preview: {output_path}")
    else:
        print(f"\n✗ Error: {response.status_code}")
        print(response.text)


def deskew_example(subject: Path):
    """
    Example: Straighten a tilted cutout via API
    """
    api_url = "http://localhost:8000"

    files = {"image": (subject.name, subject.read_bytes(), "image/png")}
    response = httpx.post(f"{api_url}/deskew", files=files, timeout=60)

    if response.status_code == 200:
        result = response.json()
        result.pop("image_base64", None)
        result.pop("clean_image_base64", None)
        print(json.dumps(result, indent=2))
    else:
        print(f"Error: {response.status_code}")


def direct_pipeline_example(backdrop: Path, subject: Path):
    """
    Example: Use pipeline directly (without API)
    """
    from main import StagingPipeline

    print("\nRunning pipeline directly...")

    pipeline = StagingPipeline()
    pipeline.add_subject(subject.stem, subject.read_bytes())

    for result in pipeline.process_batch(backdrop.read_bytes(), aspect_ratio="1:1", width=1200):
        if result['success']:
            print(f"\n✓ {result['name']}: {result['filename']}")
            print(f"  Deskew: {result['reason']}")
        else:
            print(f"\n✗ {result['name']}: {result['error']}")


if __name__ == "__main__":
    import sys

    print("=" * 60)
    print("Product Staging - Example Usage")
    print("=" * 60)

    if len(sys.argv) < 3:
        print("\nUsage: python example_usage.py BACKDROP SUBJECT [CLEAN] [direct]")
        sys.exit(1)

    backdrop_path = Path(sys.argv[1])
    subject_path = Path(sys.argv[2])
    clean_path = Path(sys.argv[3]) if len(sys.argv) > 3 and sys.argv[3] != "direct" else None

    if sys.argv[-1] == "direct":
        direct_pipeline_example(backdrop_path, subject_path)
    else:
        print("\nMake sure the API server is running: python main.py")
        composite_example(backdrop_path, subject_path, clean_path)
        deskew_example(subject_path)

    print("\n" + "=" * 60)
