# src/database/exceptions.py


class StoreError(Exception):
    """Falha de rede/autenticação/limite ao acessar o store de documentos."""

    def __init__(self, mensagem: str, colecao: str | None = None, doc_id: str | None = None):
        super().__init__(mensagem)
        self.colecao = colecao
        self.doc_id = doc_id


class ConflictError(StoreError):
    """Update condicional rejeitado: o documento mudou desde a leitura."""
