[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dmsview"
version = "0.1.0"
description = "Reader and CPU animator for DMS skinned-mesh models and DTEX textures"
requires-python = ">=3.10"
dependencies = []
keywords = ["3d", "model", "skeletal-animation", "skinning", "texture", "dtex", "triangle-strips"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dmsview"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
