#!/usr/bin/env python
# -*- coding: utf-8 -*-


def main():
    from setuptools import setup, find_packages

    version_dict = {}
    init_filename = "dualprimal/version.py"
    exec(compile(open(init_filename, "r").read(), init_filename, "exec"),
            version_dict)

    setup(name="dualprimal",
          version=version_dict["VERSION_TEXT"],
          description="Dof mapping for dual-primal substructuring "
                      "(IETI/FETI-DP) solvers",
          long_description=open("README.rst", "rt").read(),
          author="dualprimal contributors",
          license="MIT",
          classifiers=[
              "Development Status :: 3 - Alpha",
              "Intended Audience :: Developers",
              "Intended Audience :: Other Audience",
              "Intended Audience :: Science/Research",
              "License :: OSI Approved :: MIT License",
              "Natural Language :: English",
              "Programming Language :: Python",
              "Programming Language :: Python :: 3",
              "Programming Language :: Python :: 3.10",
              "Programming Language :: Python :: 3.11",
              "Programming Language :: Python :: 3.12",
              "Topic :: Scientific/Engineering",
              "Topic :: Scientific/Engineering :: Mathematics",
              "Topic :: Software Development :: Libraries",
              "Topic :: Utilities",
              ],

          packages=find_packages(include=["dualprimal", "dualprimal.*"]),
          python_requires="~=3.10",
          install_requires=[
              "numpy",
              "scipy",
              "modepy>=2021.1",
              "pytools>=2022.1",
              "pytest>=2.3",
              ],
          )


if __name__ == "__main__":
    main()
