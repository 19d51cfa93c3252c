from dataclasses import dataclass


@dataclass
class Message:
    id: int
    direction: str      # "in" | "out"
    peer: str           # "ip:port" of the other side
    text: str
    ts: float
