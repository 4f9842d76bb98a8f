import os
import subprocess
import sys
from pathlib import Path


def main():
    project_root = Path(__file__).parent.parent

    # Ensure src is importable by the uvicorn process
    env = os.environ.copy()
    src_path = str(project_root / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_path, env.get("PYTHONPATH")]))
    env.setdefault("PARTS_PRICING_DATA_DIR", str(project_root / "data"))

    print(f"Starting Parts Pricing API (data: {env['PARTS_PRICING_DATA_DIR']})...")
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "parts_pricing.api.main:app",
            "--host", "0.0.0.0",
            "--port", "8000",
        ], env=env, cwd=project_root)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
