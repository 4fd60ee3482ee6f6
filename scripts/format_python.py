#!/usr/bin/env python3
"""
Script to format the dualcache sources and scripts using black.
"""

import subprocess
import sys
from pathlib import Path

# Directories holding project code, relative to the project root
SOURCE_DIRS = ("dualcache", "scripts")


def find_python_files(root_dir: Path) -> list[Path]:
    """Find all Python files in the project source directories."""
    python_files = []
    for source_dir in SOURCE_DIRS:
        python_files.extend(sorted((root_dir / source_dir).rglob("*.py")))
    return python_files


def format_with_black(root_dir: Path, file_paths: list[Path], check: bool = False) -> bool:
    """Format the given Python files using black (settings come from pyproject.toml)."""
    if not file_paths:
        print("No Python files found to format.")
        return True

    cmd = ["black", "--config", str(root_dir / "pyproject.toml")]
    if check:
        cmd.append("--check")
    cmd.extend(str(f) for f in file_paths)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        print("Error: black not found. Please install it using 'pip install -e .[dev]'.")
        return False

    if result.returncode == 0:
        print(f"Successfully {'checked' if check else 'formatted'} {len(file_paths)} file(s).")
        return True

    print("Formatting failed:")
    print(result.stderr)
    return False


def main():
    """Main function to run the formatting script."""
    # Start from project root (one level up from scripts directory)
    project_root = Path(__file__).parent.parent
    check = "--check" in sys.argv[1:]

    python_files = find_python_files(project_root)
    print(f"Found {len(python_files)} Python file(s).")

    success = format_with_black(project_root, python_files, check=check)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
