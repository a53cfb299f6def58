"""Setup configuration for the Signal Trader package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="signal-trader",
    version="0.1.0",
    author="Signal Trader Contributors",
    description="A periodic signal-driven trading control loop with take-profit and stop-loss exits",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["signal_trader", "signal_trader.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.32.3",
        "pandas>=2.2.0",
        "pydantic>=2.6.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.29.0",
        "ccxt>=4.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.3.3",
            "pytest-cov>=5.0.0",
            "httpx>=0.27.0",
            "mypy>=1.11.2",
            "black>=24.8.0",
            "ruff>=0.6.9",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Office/Business :: Financial :: Investment",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
    ],
    entry_points={
        "console_scripts": [
            "signal-trader=signal_trader.cli.run_loop_cli:main",
        ],
    },
)
