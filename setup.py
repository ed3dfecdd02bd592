import os
import re

from setuptools import find_packages
from setuptools import setup


with open(
    os.path.join(os.path.dirname(__file__), "mysql_sampler", "__init__.py")
) as file_:
    VERSION = (
        re.compile(r".*__version__ = [\"'](.*?)[\"']", re.S)
        .match(file_.read())
        .group(1)
    )


readme = os.path.join(os.path.dirname(__file__), "README.rst")

requires = ["SQLAlchemy>=1.4", "PyMySQL"]


setup(
    name="mysql-sampler",
    version=VERSION,
    description="Sample MySQL server status and configuration for a "
    "host monitoring agent",
    long_description=open(readme).read(),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Database",
        "Topic :: System :: Monitoring",
    ],
    keywords="MySQL monitoring SQLAlchemy",
    license="MIT",
    packages=find_packages(".", exclude=["examples*", "*.tests"]),
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.7",
    install_requires=requires,
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": ["mysql-sampler = mysql_sampler.main:main"]
    },
)
