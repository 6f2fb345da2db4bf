import setuptools


with open('README.md', 'r') as fh:
    long_description = fh.read()

setuptools.setup(
    name="ndstore",
    version="0.1.0",
    description="ndstore is a minimal record store backed by a line-delimited file.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=("tests",)),
    python_requires=">=3.10",
    classifiers=(
        "Programming Language :: Python :: 3",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries",
        "Topic :: Utilities",
    ),
    install_requires=[
        "PyYAML>=6.0",
        "watchdog>=3.0",
        "websockets>=12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ndstore=ndstore.cli.__main__:main",
        ],
    },
)
