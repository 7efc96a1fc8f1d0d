"""
Setup script for neurotrack.

neurotrack is the behavioral telemetry pipeline behind the interactive
learning activities. It turns per-interaction events into:

1. Session metrics - accuracy, latency, engagement, fatigue, distraction
2. Cognitive domain scores - visual, auditory, executive, memory, attention, speed
3. Adaptive guidance - prioritized recommendations and progression trends

The 'neurotrack' command replays event logs and inspects stored history.
"""

from setuptools import find_packages, setup

setup(
    name="neurotrack",
    version="1.0.0",
    description="Behavioral telemetry and cognitive-domain analysis for interactive learning activities",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="neurotrack developers",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "neurotrack=neurotrack.cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning telemetry metrics cognitive adaptive education",
)
