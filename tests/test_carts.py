from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core import clock
from app.core.errors import DomainError, ErrorKind
from app.services import cart_service


def _add(client, pedido_id, ref, quantidade, produto_id=None, catalogo_id=None, **extra):
    return client.post(
        f"/api/carts/{pedido_id}/items",
        json={
            "produto_id": produto_id or ref.npk_id,
            "catalogo_id": catalogo_id or ref.catalogo_id,
            "quantidade": quantidade,
            **extra,
        },
    )


def _assert_conservation(pedido):
    soma_final = sum(Decimal(str(i["valor_final"])) for i in pedido["itens"])
    assert Decimal(str(pedido["valor_total"])) == soma_final
    assert pedido["quantidade_itens"] == len(pedido["itens"])


def test_open_cart_reutiliza_carrinho_aberto(open_cart):
    primeiro = open_cart()
    segundo = open_cart()
    assert primeiro["id"] == segundo["id"]
    assert primeiro["status"] == "EM_ABERTO"
    assert primeiro["valor_total"] == 0


def test_open_cart_produtor_inexistente(client, ref):
    resp = client.post("/api/carts/", json={"produtor_id": 9999, "fornecedor_id": ref.fornecedor_id})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "ENTITY_NOT_FOUND"


def test_add_item_resolve_faixa_e_desconto_do_combo(client, ref, open_cart):
    pedido = open_cart()
    resp = _add(client, pedido["id"], ref, "10")
    assert resp.status_code == 201, resp.text
    body = resp.json()

    item = body["itens"][0]
    assert item["preco_unitario"] == 90
    # Produtor de 350 ha no combo 50-500 ha: 10% sobre 900
    assert item["valor_total"] == 900
    assert item["valor_desconto"] == 90
    assert item["valor_final"] == 810
    assert item["dados_desconto"]["combo_id"] == ref.combo_id
    _assert_conservation(body)


def test_produtor_fora_do_combo_nao_recebe_desconto(client, ref, open_cart):
    pedido = open_cart(produtor_id=ref.produtor_pequeno_id)
    body = _add(client, pedido["id"], ref, "10").json()
    assert body["itens"][0]["valor_desconto"] == 0
    assert body["valor_total"] == 900


def test_add_item_mesmo_produto_soma_quantidade(client, ref, open_cart):
    pedido = open_cart()
    _add(client, pedido["id"], ref, "5")
    body = _add(client, pedido["id"], ref, "5").json()
    assert len(body["itens"]) == 1
    assert body["itens"][0]["quantidade"] == 10
    # Soma cruzou para a faixa de 90
    assert body["itens"][0]["preco_unitario"] == 90
    _assert_conservation(body)


def test_catalogo_de_outro_fornecedor(client, ref, open_cart):
    pedido = open_cart()
    resp = _add(client, pedido["id"], ref, "5", catalogo_id=ref.catalogo_outro_id)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"


def test_catalogo_vencido(client, ref, open_cart):
    pedido = open_cart()
    resp = _add(client, pedido["id"], ref, "5", catalogo_id=ref.catalogo_vencido_id)
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "PRICE_NOT_FOUND"


def test_quantidade_invalida_no_corpo(client, ref, open_cart):
    pedido = open_cart()
    resp = _add(client, pedido["id"], ref, "0")
    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert "quantidade" in body["error_description"]


def test_update_quantity_muda_faixa(client, ref, open_cart):
    pedido = open_cart()
    item_id = _add(client, pedido["id"], ref, "5").json()["itens"][0]["id"]

    resp = client.put(f"/api/carts/{pedido['id']}/items/{item_id}/quantity", json={"quantidade": "60"})
    assert resp.status_code == 200, resp.text
    item = resp.json()["itens"][0]
    assert item["preco_unitario"] == 80
    assert item["valor_total"] == 4800
    _assert_conservation(resp.json())


def test_remove_item(client, ref, open_cart):
    pedido = open_cart()
    _add(client, pedido["id"], ref, "5")
    body = _add(client, pedido["id"], ref, "2", produto_id=ref.semente_id).json()
    assert body["quantidade_itens"] == 2

    item_id = body["itens"][0]["id"]
    resp = client.delete(f"/api/carts/{pedido['id']}/items/{item_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["quantidade_itens"] == 1
    _assert_conservation(body)


def test_remove_item_inexistente(client, ref, open_cart):
    pedido = open_cart()
    resp = client.delete(f"/api/carts/{pedido['id']}/items/12345")
    assert resp.status_code == 404


def test_recalculate_totals_idempotente(client, ref, open_cart):
    pedido = open_cart()
    _add(client, pedido["id"], ref, "12")
    _add(client, pedido["id"], ref, "3", produto_id=ref.semente_id)

    primeiro = client.post(f"/api/carts/{pedido['id']}/recalculate-totals").json()
    segundo = client.post(f"/api/carts/{pedido['id']}/recalculate-totals").json()
    for campo in ("valor_bruto", "valor_desconto", "valor_total", "quantidade_itens"):
        assert primeiro[campo] == segundo[campo]
    # Nada mudou: versão também não muda
    assert primeiro["versao"] == segundo["versao"]
    _assert_conservation(segundo)


def test_extend_deadline_nunca_diminui(client, open_cart):
    pedido = open_cart(dias_limite=10)
    prazo_original = datetime.fromisoformat(pedido["data_limite_interacao"])

    curto = client.put(f"/api/carts/{pedido['id']}/deadline", json={"dias": 2}).json()
    assert datetime.fromisoformat(curto["data_limite_interacao"]) == prazo_original

    longo = client.put(f"/api/carts/{pedido['id']}/deadline", json={"dias": 20}).json()
    assert datetime.fromisoformat(longo["data_limite_interacao"]) > prazo_original


@pytest.mark.parametrize("dias", [0, -3])
def test_extend_deadline_dias_invalidos(client, open_cart, dias):
    pedido = open_cart()
    resp = client.put(f"/api/carts/{pedido['id']}/deadline", json={"dias": dias})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_ARGUMENT"


def test_extend_deadline_em_pedido_cancelado_nao_altera(client, open_cart):
    pedido = open_cart()
    client.post(f"/api/carts/{pedido['id']}/cancel", json={"motivo": "desistiu"})
    resp = client.put(f"/api/carts/{pedido['id']}/deadline", json={"dias": 30})
    assert resp.status_code == 200
    assert resp.json()["data_limite_interacao"] == pedido["data_limite_interacao"]
    assert resp.json()["status"] == "CANCELADO"


def test_submit_exige_itens(client, open_cart):
    pedido = open_cart()
    resp = client.post(f"/api/carts/{pedido['id']}/submit")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"


def test_submit_e_cancelamento(client, ref, open_cart):
    pedido = open_cart()
    _add(client, pedido["id"], ref, "5")
    resp = client.post(f"/api/carts/{pedido['id']}/submit")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ENVIADO"

    resp = client.post(f"/api/carts/{pedido['id']}/cancel", json={"motivo": "mudou de ideia"})
    assert resp.json()["status"] == "CANCELADO"
    assert resp.json()["motivo_cancelamento"] == "mudou de ideia"

    resp = _add(client, pedido["id"], ref, "1")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"


def test_expiracao_observada_na_leitura(client, ref, open_cart, monkeypatch):
    pedido = open_cart(dias_limite=2)
    futuro = clock.utcnow() + timedelta(days=3)
    monkeypatch.setattr(clock, "utcnow", lambda: futuro)

    assert client.get(f"/api/carts/{pedido['id']}").json()["status"] == "EXPIRADO"
    resp = _add(client, pedido["id"], ref, "1")
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "EXPIRED"


def test_versao_esperada_desatualizada(client, ref, open_cart):
    pedido = open_cart()
    body = _add(client, pedido["id"], ref, "5").json()
    item_id = body["itens"][0]["id"]
    versao = body["versao"]

    # Duas alterações partindo do mesmo snapshot: a segunda chega com versão velha
    primeira = client.put(
        f"/api/carts/{pedido['id']}/items/{item_id}/quantity",
        json={"quantidade": "8", "versao_esperada": versao},
    )
    assert primeira.status_code == 200
    segunda = client.put(
        f"/api/carts/{pedido['id']}/items/{item_id}/quantity",
        json={"quantidade": "12", "versao_esperada": versao},
    )
    assert segunda.status_code == 409
    assert segunda.json()["error_code"] == "CONCURRENCY_CONFLICT"

    # Recarrega e tenta de novo com a versão atual
    atual = client.get(f"/api/carts/{pedido['id']}").json()
    terceira = client.put(
        f"/api/carts/{pedido['id']}/items/{item_id}/quantity",
        json={"quantidade": "12", "versao_esperada": atual["versao"]},
    )
    assert terceira.status_code == 200
    assert terceira.json()["itens"][0]["quantidade"] == 12


def test_conflito_de_versao_entre_sessoes(session_factory, ref):
    """Sessão com snapshot antigo perde para a que gravou primeiro."""
    s1, s2 = session_factory(), session_factory()
    try:
        pedido = cart_service.open_cart(s1, produtor_id=ref.produtor_id, fornecedor_id=ref.fornecedor_id)
        item = cart_service.add_item(
            s1, pedido.id, produto_id=ref.npk_id, quantidade=Decimal("5"), catalogo_id=ref.catalogo_id
        )
        versao = cart_service.get_cart(s2, pedido.id).versao

        cart_service.update_quantity(s1, pedido.id, item.id, nova_quantidade=Decimal("7"), versao_esperada=versao)
        with pytest.raises(DomainError) as exc:
            cart_service.update_quantity(
                s2, pedido.id, item.id, nova_quantidade=Decimal("9"), versao_esperada=versao
            )
        assert exc.value.kind == ErrorKind.concurrency_conflict

        atualizado = cart_service.update_quantity(s2, pedido.id, item.id, nova_quantidade=Decimal("9"))
        assert atualizado.quantidade == Decimal("9")
    finally:
        s1.close()
        s2.close()


def test_pedido_inexistente(client):
    resp = client.get("/api/carts/424242")
    assert resp.status_code == 404
    assert resp.json() == {
        "error_code": "ENTITY_NOT_FOUND",
        "error_description": "Pedido 424242 não encontrado.",
    }
