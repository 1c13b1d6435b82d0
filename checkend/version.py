"""SDK identity reported in the notifier block and User-Agent."""

VERSION = "0.1.0"
SDK_NAME = "checkend-python"
