#!/usr/bin/env python3
"""Cross-platform install script for cli-ai-agent.

Usage:
    python install.py          # Production install
    python install.py --dev    # Development install (includes pytest)
"""

import os
import platform
import shutil
import subprocess
import sys
from pathlib import Path

MIN_PYTHON = (3, 11)
APP_HOME = Path.home() / ".cli-ai-agent"


def main() -> None:
    # 1. Check Python version
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    dev = "--dev" in sys.argv
    project_dir = Path(__file__).resolve().parent
    venv_dir = project_dir / ".venv"
    is_windows = platform.system() == "Windows"

    bin_dir = venv_dir / ("Scripts" if is_windows else "bin")
    pip = str(bin_dir / "pip")

    # 2. Virtual environment
    if not venv_dir.is_dir():
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", str(venv_dir)])

    # 3. Install the package (editable with test extras for --dev)
    subprocess.check_call([pip, "install", "--upgrade", "pip"])
    target = ".[dev]" if dev else "."
    cmd = [pip, "install", "-e", target] if dev else [pip, "install", target]
    print(f"Installing cli-ai-agent ({'development' if dev else 'production'})...")
    subprocess.check_call(cmd, cwd=project_dir)

    # 4. Config home with example config
    APP_HOME.mkdir(parents=True, exist_ok=True)
    config_path = APP_HOME / "config.yaml"
    if not config_path.exists():
        shutil.copy(project_dir / "config.example.yaml", config_path)
        print(f"Created {config_path}")
    else:
        print(f"{config_path} already exists, skipping.")

    env_path = project_dir / ".env"
    if not env_path.exists() and (project_dir / ".env.example").exists():
        shutil.copy(project_dir / ".env.example", env_path)
        print(f"Created {env_path} - set ANTHROPIC_API_KEY there.")

    activate = r".\.venv\Scripts\activate" if is_windows else "source .venv/bin/activate"
    print()
    print("=" * 50)
    print("  cli-ai-agent installation complete!")
    print("=" * 50)
    print()
    print("Next steps:")
    print(f"  1. {activate}")
    print("  2. cli-ai-agent login --token <your access token>")
    print("  3. cli-ai-agent wakeup")
    print()


if __name__ == "__main__":
    os.chdir(Path(__file__).resolve().parent)
    main()
