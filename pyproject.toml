[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "attitudekit"
version = "0.1.0"
description = "Attitude estimation for stabilized vehicles: sensor fusion filters, an AHRS loop, telemetry and command packets"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "ahrs",
    "imu",
    "sensor-fusion",
    "madgwick",
    "mahony",
    "complementary-filter",
    "quaternion",
    "telemetry",
    "robotics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
attitudekit = "attitudekit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["attitudekit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
