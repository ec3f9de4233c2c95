"""Navigator: bounded position within the session question list"""


class Navigator:

    def __init__(self, length: int, start: int = 0):
        if length <= 0:
            raise ValueError("Navigator needs at least one question")
        self.length = length
        self._index = min(max(start, 0), length - 1)
        self._frozen = False

    def current_index(self) -> int:
        return self._index

    def next(self) -> bool:
        return self.jump_to(self._index + 1)

    def previous(self) -> bool:
        return self.jump_to(self._index - 1)

    def jump_to(self, index: int) -> bool:
        """Move to index; out-of-range or frozen moves are rejected"""
        if self._frozen or not 0 <= index < self.length:
            return False
        self._index = index
        return True

    def is_first(self) -> bool:
        return self._index == 0

    def is_last(self) -> bool:
        return self._index == self.length - 1

    def progress_fraction(self) -> float:
        return (self._index + 1) / self.length

    def freeze(self) -> None:
        self._frozen = True
