from setuptools import setup, find_packages
import os

# Read README.md if it exists
long_description = ''
if os.path.exists('README.md'):
    with open('README.md', encoding='utf-8') as f:
        long_description = f.read()

# Read requirements.txt
requirements = []
if os.path.exists('requirements.txt'):
    with open('requirements.txt', encoding='utf-8') as f:
        requirements = [line.strip() for line in f
                       if line.strip() and not line.startswith('#')]

setup(
    name="firegrid",
    version="0.1.0",
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=requirements,
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
        ],
    },
    python_requires=">=3.9",
    description="Hexagonal (H3) spatial aggregation and caching of wildfire burnt areas",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Scientific/Engineering :: Information Analysis",
    ],
    keywords="wildfire, burnt-area, geospatial, h3, hexagon, aggregation, cache",
    include_package_data=True,
    package_data={
        'firegrid': [
            'configs/*.yaml',
            'configs/*.yml',
        ],
    },
    zip_safe=False,
)
