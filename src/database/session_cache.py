# src/database/session_cache.py

# ============================================================
# 🧠 Cache em memória com TTL (escopo: vida do processo)
# ============================================================

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple
from loguru import logger


class CacheWithTTL:
    """
    Mapa chave → (valor, expiração absoluta).
    - get/has tratam entrada expirada como ausente e a removem na hora
    - uma thread daemon varre as entradas expiradas a cada `cleanup_interval`
      segundos, independente dos acessos
    Nada é persistido: o cache nasce vazio a cada reinício do processo.
    """

    def __init__(
        self,
        ttl: float = 5 * 60,
        cleanup_interval: Optional[float] = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

        if cleanup_interval:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                args=(cleanup_interval,),
                name="cache-ttl-cleanup",
                daemon=True,
            )
            self._sweeper.start()

    # =========================================================
    # Operações básicas
    # =========================================================
    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + self.ttl)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expiry = entry
            if self._clock() > expiry:
                del self._entries[key]
                return default
            return value

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._clock() > entry[1]:
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    @property
    def size(self) -> int:
        """Número de entradas armazenadas (inclui expiradas ainda não varridas)."""
        with self._lock:
            return len(self._entries)

    # =========================================================
    # Limpeza
    # =========================================================
    def cleanup(self) -> int:
        """Remove todas as entradas expiradas e retorna quantas saíram."""
        now = self._clock()
        with self._lock:
            expiradas = [k for k, (_, expiry) in self._entries.items() if now > expiry]
            for key in expiradas:
                del self._entries[key]
        if expiradas:
            logger.debug(f"🧹 Cache TTL: {len(expiradas)} entradas expiradas removidas")
        return len(expiradas)

    def _sweep_loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.cleanup()

    def destroy(self) -> None:
        """Para a varredura automática e esvazia o cache."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None
        self.clear()
