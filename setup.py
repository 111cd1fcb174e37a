"""
Setup script for adaptive-personalization-engine.

The engine turns learner telemetry into detected learning needs, ranked
and diversified content recommendations, and adaptive assessments. It
ships three surfaces:

1. Library - PersonalizationEngine for in-process use
2. HTTP service - FastAPI app (personalization.api.main:app)
3. CLI - the 'personalize' command
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-personalization-engine",
    version="1.0.0",
    description="Adaptive learning personalization: need detection, multi-strategy ranking, adaptive assessment",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["personalization", "personalization.*"]),
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
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # Numerics
        "numpy>=1.24.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "personalize=personalization.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="adaptive-learning personalization recommendation assessment education",
)
