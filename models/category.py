from dataclasses import dataclass


@dataclass
class Category:
    id: str
    name: str
    type: str           # 'income' | 'expense' | 'both'


@dataclass
class Tag:
    id: str
    name: str
