[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "emitter"
version = "0.1.0"
description = "Message broker building blocks: subscription IDs, message IDs and frames, a subscription trie, MQTT packet encoding, protocol matchers and connection wrappers"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "pubsub", "broker", "messaging", "snappy", "trie", "websocket"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Communications",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["emitter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
