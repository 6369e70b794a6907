from __future__ import annotations

from dataclasses import dataclass

IP_BLOCKED_MESSAGE = "Acesso bloqueado para o IP atual"
SCHEDULE_BLOCKED_MESSAGE = "Acesso bloqueado fora do horário permitido"
TENANT_BLOCKED_MESSAGE = "Sem acesso"


@dataclass
class AccessDenied(Exception):
    message: str
    code: str = "FORBIDDEN"
    status_code: int = 403

    def __str__(self) -> str:
        return self.message
