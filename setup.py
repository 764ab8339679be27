"""
SPDX-License-Identifier: Apache-2.0
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="resourcegate",
        version="0.1.0",
        description="Per-request resource loading and authorization for Tornado controllers",
        license="Apache-2.0",
        python_requires=">=3.10",
        packages=setuptools.find_packages(include=["resourcegate", "resourcegate.*"]),
        install_requires=[
            "inflection",
            "sqlalchemy>=2.0",
            "tornado>=6.1",
        ],
        extras_require={
            "test": ["pytest"],
        },
        data_files=[("/etc/resourcegate", ["config/resourcegate.conf", "config/logging.conf"])],
    )
