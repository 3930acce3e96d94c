"""Set-up file for comptpfa for installations using ``pip install .``"""
from setuptools import find_packages, setup


with open("requirements.txt") as f:
    required = f.read().splitlines()

with open("requirements-dev.txt") as f:
    required_dev = f.read().splitlines()


setup(
    name="comptpfa",
    version="0.1.0",
    license="GPL",
    keywords=["porous media simulation compressible multiphase pressure tpfa"],
    install_requires=required,
    extras_require={"testing": required_dev},
    description="Newton solver for the pressure equation of compressible multiphase "
    "flow in porous media",
    platforms=["Linux", "Windows", "Mac OS-X"],
    package_data={"comptpfa": ["py.typed"]},
    python_requires=">=3.9",
    packages=find_packages("src"),
    package_dir={"": "src"},
    zip_safe=False,
)
