# app/models/__init__.py
from .produto import Produto, TipoCalculoPeso
from .partner import Fornecedor, Produtor
from .ponto_distribuicao import Endereco, PontoDistribuicao
from .catalog import Catalogo, CatalogoItem
from .combo import Combo, ComboCategoriaDesconto, StatusCombo
from .order import Pedido, PedidoItem, StatusCarrinho, STATUS_NEGOCIAVEIS, STATUS_TERMINAIS
from .proposal import Proposta, AcaoProposta, LadoAutor
from .transport import PedidoItemTransporte

__all__ = [
    "Produto",
    "TipoCalculoPeso",
    "Fornecedor",
    "Produtor",
    "Endereco",
    "PontoDistribuicao",
    "Catalogo",
    "CatalogoItem",
    "Combo",
    "ComboCategoriaDesconto",
    "StatusCombo",
    "Pedido",
    "PedidoItem",
    "StatusCarrinho",
    "STATUS_NEGOCIAVEIS",
    "STATUS_TERMINAIS",
    "Proposta",
    "AcaoProposta",
    "LadoAutor",
    "PedidoItemTransporte",
]
