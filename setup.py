from setuptools import setup, find_packages

setup(
    name="semantic_code_search",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "pyyaml",
        "numpy>=1.24",
        "sqlite-vec>=0.1.6",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    author="Uday Kanth",
    description="Local semantic code search over SQLite vector embeddings.",
)
