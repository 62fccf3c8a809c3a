from typing import Dict


class InvalidTransition(Exception):
    """Editor asked to move between states that are not connected"""

    def __init__(self, current: str, action: str):
        super().__init__(f"Cannot {action} while {current}")
        self.current = current
        self.action = action


class ValidationFailed(Exception):
    """Required fields are missing; ``errors`` maps field name to message"""

    def __init__(self, errors: Dict[str, str]):
        super().__init__(", ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = errors
