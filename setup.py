#!/usr/bin/env python
"""Setup script for the Frame Classifier pipeline."""

from setuptools import setup, find_packages
from pathlib import Path

# Read long description from README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Read requirements
requirements_path = Path(__file__).parent / "requirements.txt"
requirements = [
    line.strip()
    for line in requirements_path.read_text().splitlines()
    if line.strip() and not line.startswith("#")
] if requirements_path.exists() else []

dev_requirements_path = Path(__file__).parent / "requirements-dev.txt"
dev_requirements = [
    line.strip()
    for line in dev_requirements_path.read_text().splitlines()
    if line.strip() and not line.startswith("#")
] if dev_requirements_path.exists() else []

# Read version from package
version_path = Path(__file__).parent / "src" / "frame_classifier" / "__init__.py"
version_info = {}
if version_path.exists():
    exec(version_path.read_text(), version_info)
    version = version_info.get("__version__", "0.1.0")
else:
    version = "0.1.0"

setup(
    name="frame-classifier-pipeline",
    version=version,
    author="Frame Classifier Team",
    description="Per-frame image classification pipeline for embedded camera modules",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Scientific/Engineering :: Image Recognition",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
        "testing": dev_requirements,
    },
    entry_points={
        "console_scripts": [
            "frame-classify=frame_classifier.cli:main",
        ],
    },
    include_package_data=True,
    data_files=[
        ("configs", ["configs/whole_frame.yaml", "configs/roi.yaml"]),
    ],
    keywords=[
        "computer-vision",
        "embedded-vision",
        "image-classification",
        "yuyv",
        "cifar10",
    ],
)
