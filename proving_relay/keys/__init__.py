from .key_file import (
    KeyFile as KeyFile,
    key_file_path as key_file_path,
    read_key_file as read_key_file,
    write_key_file as write_key_file,
)
from .key_manager import KeyManager as KeyManager
