[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "splatkit"
version = "0.2.0"
description = "Gaussian splat PLY import and export, multi-view scene handling and small numeric helpers"
requires-python = ">=3.10"
keywords = ["gaussian-splatting", "ply", "3d", "point-cloud", "dataset"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["splatkit"]

[tool.pytest.ini_options]
addopts = "-ra"
