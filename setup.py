"""
Pyactive - Lightweight Active Record ORM

Records as objects: declare models and relations, query with chained calls
instead of hand-written SQL.
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_long_description():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return ""

# Define optional dependencies
extras_require = {
    # Standard library connector (no extra install needed)
    'sqlite': [],

    # Development dependencies
    'dev': [
        'pytest>=7.0.0',
        'mypy>=0.950',
    ],
}

setup(
    name="pyactive",
    version="0.1.0",
    description="Lightweight Active Record ORM - dirty tracking, fluent predicates, eager-loaded relations",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=['tests', 'tests.*']),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Typing :: Typed",
    ],
    # dataclass(slots=True)
    python_requires=">=3.10",

    # Core dependencies (zero external dependencies, pure Python)
    install_requires=[],

    # Optional dependencies
    extras_require=extras_require,

    keywords="orm active-record sqlite eager-loading relations python lightweight",
)
