from setuptools import setup, find_packages
from version import version


with open("README.rst") as f:
    long_description = f.read()

setup(
    name="ObsTools",
    version=version,
    description="A library to iterate over data containers as observations, "
                "with lazy views, batching, resampling and prefetching",
    long_description=long_description,
    keywords=['observations', 'lazy', 'minibatch', 'dataloader',
              'cross-validation', 'prefetch'],
    license="Mozilla Public License 2.0 (MPL 2.0)",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: Implementation :: CPython",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)",
        "Development Status :: 3 - Alpha",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research"],
    packages=find_packages(exclude=["tests", "docs"]),
    install_requires=[
        'numpy', 'tblib'],
    extras_require={
        'tests': [
            'pytest', 'pytest-timeout', 'coverage']
    }
)
