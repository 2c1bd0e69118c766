#!/usr/bin/env python
"""Setup script for mlcore."""

from setuptools import setup, find_packages
from pathlib import Path
import re

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

# Read version from package
version_path = Path(__file__).parent / "src" / "mlcore" / "__init__.py"
version_match = re.search(r'^__version__ = "([^"]+)"', version_path.read_text(), re.M) \
    if version_path.exists() else None
version = version_match.group(1) if version_match else "0.1.0"

setup(
    name="mlcore",
    version=version,
    author="mlcore Team",
    description="In-process ML inference core: tensors, model lifecycle, registry, vision parsers and pipelines",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Scientific/Engineering :: Image Recognition",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            line.strip()
            for line in (Path(__file__).parent / "requirements-dev.txt").read_text().splitlines()
            if line.strip() and not line.startswith("#")
        ],
        "testing": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.11.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mlcore-benchmark=mlcore.benchmark:main",
        ],
    },
    keywords=[
        "computer-vision",
        "deep-learning",
        "inference",
        "object-detection",
        "pose-estimation",
        "model-registry",
    ],
    license="Apache License 2.0",
)
