from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README.md for long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="ednareport",
    version="0.1.0",

    # Descriptions
    description="Maps, charts and sortable tables summarizing eDNA metabarcoding survey data",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # License
    license="MIT",

    # Package discovery
    packages=find_packages(exclude=["tests", "tests.*", "docs", "examples"]),

    # Python version requirement
    python_requires=">=3.9",

    # Core dependencies
    install_requires=[
        "pandas>=1.3.0",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "scikit-learn>=1.4,<1.8",
        "matplotlib>=3.4.0",
        "seaborn>=0.11.0",
        "jinja2>=3.0.0",
    ],

    # Optional dependencies for specific features
    extras_require={
        "geo": [
            "cartopy>=0.20.0",
        ],
        "yaml": [
            "pyyaml>=5.4",
        ],
        "test": [
            "pytest>=7.0.0",
            "pyyaml>=5.4",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
        "all": [
            "cartopy>=0.20.0",
            "pyyaml>=5.4",
        ],
    },

    # Command-line interface
    entry_points={
        'console_scripts': [
            'ednareport=ednareport.cli:main',
        ],
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Topic :: Scientific/Engineering :: Visualization",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Natural Language :: English",
    ],

    keywords=[
        "bioinformatics",
        "eDNA",
        "metabarcoding",
        "biodiversity",
        "OBIS",
        "Darwin Core",
        "NMDS",
        "marine biology",
    ],

    zip_safe=False,
)
