# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="paraingest",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["paraingest", "paraingest.*"]),
    description="Parallel PDF text ingestion: text layer first, OCR where the layer falls short.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.9",

    install_requires=[
        "PyMuPDF",
        "Pillow",
        "numpy",
        "tqdm",
        "pytesseract",
        "easyocr",
        "torch",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'paraingest=paraingest.cli:main',
        ],
    },
)
