"""
python -m build
twine upload dist/*
"""

from setuptools import setup, find_packages


def sajsonapi_setup():
    with open("requirements.txt", "rt") as fp:
        install_requires = fp.read().strip().split("\n")

    version = "1.0.0"

    setup(
        name="sajsonapi",
        packages=find_packages(include=["sajsonapi", "sajsonapi.*"]),
        version=version,
        license="MIT",
        description="sajsonapi : JSON:API documents for SQLAlchemy models",
        long_description=open("README.rst").read(),
        keywords=["SqlAlchemy", "asyncio", "Flask", "REST", "JsonAPI"],
        python_requires=">=3.9, <4",
        install_requires=install_requires,
        classifiers=[
            "Development Status :: 3 - Alpha",
            "License :: OSI Approved :: MIT License",
            "Intended Audience :: Developers",
            "Framework :: Flask",
            "Framework :: AsyncIO",
            "Topic :: Software Development :: Libraries",
            "Environment :: Web Environment",
            "Programming Language :: Python :: 3.12",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.10",
            "Programming Language :: Python :: 3.9",
        ],
        extras_require={"test": ["pytest>=7.0", "pytest-asyncio>=0.21", "aiosqlite>=0.19"]},
    )


sajsonapi_setup()  # pragma: no cover
