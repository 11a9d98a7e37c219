"""
Exceptions for PocketPrompt
Everything derives from PocketPromptError so callers have one general error catcher
"""


class PocketPromptError(Exception):
    # general container for errors
    pass


class InitializationError(PocketPromptError):
    # raised when configuration or initialization fails
    pass


class StorageError(PocketPromptError):
    # raised if the local prompt store fails in some way
    pass


class PromptNotFoundError(StorageError):
    # raised when a prompt id does not exist in the store
    pass


class EncryptionError(PocketPromptError):
    # base for everything raised by the encryption engine
    pass


class IdentityUnavailableError(EncryptionError):
    # raised when no identity can be resolved at derivation time
    pass


class PasswordRequiredError(EncryptionError):
    # raised when content needs a password and none was given
    pass


class DerivationError(EncryptionError):
    # raised when the KDF primitive fails
    pass


class DecryptionError(EncryptionError):
    # raised on AEAD authentication failure (wrong password or tampered bytes)
    pass


class CorruptEnvelopeError(EncryptionError):
    # raised when an envelope is structurally invalid (bad base64, wrong lengths)
    pass


class PromptImportError(PocketPromptError):
    # raised when a markdown file cannot be turned into a prompt
    pass
