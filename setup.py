from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README.md for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="nfmanifest",
    version="0.1.0",

    # Descriptions
    description="Annotation manifests for processed nf-core workflow outputs",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # License
    license="MIT",

    # Package discovery
    packages=find_packages(exclude=["tests", "tests.*", "docs", "examples"]),

    include_package_data=True,

    python_requires=">=3.8",

    # Core dependencies
    install_requires=[
        "pandas>=1.3.0,<3",
        "numpy>=1.21.0",
        "jinja2>=3.0.0",
        "PyYAML>=5.4",
    ],

    # Optional dependencies for specific features
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
    },

    # Command-line interface
    entry_points={
        'console_scripts': [
            'nfmanifest=nfmanifest.cli:main',
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],

    keywords=[
        "bioinformatics",
        "nextflow",
        "nf-core",
        "metadata",
        "annotation",
        "manifest",
        "rnaseq",
        "sarek",
    ],

    zip_safe=False,
)
