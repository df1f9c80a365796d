from abc import ABC, abstractmethod


class NotifierPort(ABC):
    @abstractmethod
    def send_email(self, to: str, subject: str, html: str) -> None:
        raise NotImplementedError
