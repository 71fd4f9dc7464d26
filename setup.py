from setuptools import find_packages, setup

setup(
    name="slidereel-export",
    version="0.1.0",
    packages=find_packages(include=["services", "services.*", "shared", "shared.*"]),
    install_requires=[
        "pydantic>=2.5",
        "aiohttp>=3.9",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "playwright>=1.40",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    python_requires=">=3.10",
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "slidereel-export=services.export.cli:main",
        ],
    },
    description="Deterministic slide deck to MP4 exporter with narration and background music",
)
