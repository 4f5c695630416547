"""Setup configuration for Scholarag."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="scholarag",
    version="0.1.0",
    author="José Luis Saorín Ferrer",
    author_email="jlsaorin@users.noreply.github.com",
    description="Retrieval-augmented question answering over academic documents with page citations and multi-provider routing",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/joseluissaorin/scholarag",
    packages=find_packages(exclude=["examples"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Education",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Text Processing :: Indexing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        # Core dependencies
        "python-dotenv>=1.0.0",
        "requests>=2.31.0",
        "numpy>=1.24.0",
        # Retrieval
        "chromadb>=0.4.22",
        "google-generativeai>=0.3.0",
        # Credential vault
        "cryptography>=41.0.0",
    ],
    extras_require={
        "dev": [
            # Development dependencies
            "pytest>=7.0.0",
            "black>=22.0.0",
            "mypy>=0.990",
            "flake8>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "scholarag=scholarag.cli:main",
        ],
    },
)
