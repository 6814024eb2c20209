from datetime import timedelta

import pytest

from app.core import clock


def _cart_with_item(client, ref, open_cart, **extra):
    pedido = open_cart(**extra)
    resp = client.post(
        f"/api/carts/{pedido['id']}/items",
        json={"produto_id": ref.npk_id, "catalogo_id": ref.catalogo_id, "quantidade": "20"},
    )
    assert resp.status_code == 201
    return pedido["id"]


def _propose(client, pedido_id, lado, acao, usuario_id=None, observacao=None):
    payload = {
        "lado_autor": lado,
        "usuario_id": usuario_id or (100 if lado == "PRODUTOR" else 900),
        "acao": acao,
    }
    if observacao is not None:
        payload["observacao"] = observacao
    return client.post(f"/api/orders/{pedido_id}/proposals", json=payload)


def test_fluxo_completo_ate_aceite(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    client.post(f"/api/carts/{pedido_id}/submit")

    resp = _propose(client, pedido_id, "FORNECEDOR", "CONTRAPROPOSTA", observacao="Prazo de 60 dias")
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status_resultante"] == "EM_NEGOCIACAO"
    assert body["lado_autor"] == "FORNECEDOR"
    assert body["usuario_fornecedor_id"] == 900
    assert body["usuario_produtor_id"] is None

    resp = _propose(client, pedido_id, "PRODUTOR", "CONTRAPROPOSTA", observacao="45 dias?")
    assert resp.json()["status_resultante"] == "EM_NEGOCIACAO"
    assert resp.json()["usuario_produtor_id"] == 100

    resp = _propose(client, pedido_id, "FORNECEDOR", "ACEITE")
    assert resp.json()["status_resultante"] == "ACEITO"
    assert client.get(f"/api/carts/{pedido_id}").json()["status"] == "ACEITO"


def test_rejeicao_e_terminal(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    client.post(f"/api/carts/{pedido_id}/submit")
    assert _propose(client, pedido_id, "FORNECEDOR", "REJEICAO").json()["status_resultante"] == "REJEITADO"

    resp = _propose(client, pedido_id, "PRODUTOR", "CONTRAPROPOSTA", observacao="reconsidere")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"


def test_fornecedor_nao_responde_carrinho_aberto(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    resp = _propose(client, pedido_id, "FORNECEDOR", "ACEITE")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"


def test_contraproposta_do_fornecedor_exige_observacao(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    client.post(f"/api/carts/{pedido_id}/submit")
    resp = _propose(client, pedido_id, "FORNECEDOR", "CONTRAPROPOSTA")
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


def test_pedido_sem_negociacao_nao_aceita_contraproposta(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart, negociar_pedido=False)
    client.post(f"/api/carts/{pedido_id}/submit")
    resp = _propose(client, pedido_id, "PRODUTOR", "CONTRAPROPOSTA", observacao="desconto?")
    assert resp.status_code == 400
    assert _propose(client, pedido_id, "FORNECEDOR", "ACEITE").status_code == 201


def test_aceite_de_pedido_vazio(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    client.post(f"/api/carts/{pedido_id}/submit")
    item_id = client.get(f"/api/carts/{pedido_id}").json()["itens"][0]["id"]
    assert client.delete(f"/api/carts/{pedido_id}/items/{item_id}").status_code == 200

    resp = _propose(client, pedido_id, "FORNECEDOR", "ACEITE")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"
    assert "sem itens" in resp.json()["error_description"]


@pytest.mark.parametrize("acao", ["ACEITE", "REJEICAO"])
def test_carrinho_aberto_so_inicia_negociacao_com_contraproposta(client, ref, open_cart, acao):
    pedido_id = _cart_with_item(client, ref, open_cart)

    resp = _propose(client, pedido_id, "PRODUTOR", acao)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_OPERATION"
    assert client.get(f"/api/carts/{pedido_id}").json()["status"] == "EM_ABERTO"

    resp = _propose(client, pedido_id, "PRODUTOR", "CONTRAPROPOSTA", observacao="podemos negociar o prazo?")
    assert resp.status_code == 201
    assert resp.json()["status_resultante"] == "EM_NEGOCIACAO"


def test_proposta_apos_prazo_expira(client, ref, open_cart, monkeypatch):
    pedido_id = _cart_with_item(client, ref, open_cart, dias_limite=2)
    futuro = clock.utcnow() + timedelta(days=3)
    monkeypatch.setattr(clock, "utcnow", lambda: futuro)

    resp = _propose(client, pedido_id, "PRODUTOR", "CONTRAPROPOSTA", observacao="ainda vale?")
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "EXPIRED"


def test_historico_ordenado_e_paginado(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    client.post(f"/api/carts/{pedido_id}/submit")
    for i in range(5):
        lado = "FORNECEDOR" if i % 2 == 0 else "PRODUTOR"
        assert _propose(client, pedido_id, lado, "CONTRAPROPOSTA", observacao=f"rodada {i}").status_code == 201

    asc = client.post(f"/api/orders/{pedido_id}/proposals/list", json={"ordem": "asc", "page_size": 10}).json()
    assert asc["total"] == 5
    chaves = [(p["created_at"], p["sequencia"]) for p in asc["items"]]
    assert chaves == sorted(chaves)
    assert [p["sequencia"] for p in asc["items"]] == [1, 2, 3, 4, 5]

    desc = client.post(
        f"/api/orders/{pedido_id}/proposals/list", json={"ordem": "desc", "page": 2, "page_size": 2}
    ).json()
    assert [p["sequencia"] for p in desc["items"]] == [3, 2]

    ultima = client.get(f"/api/orders/{pedido_id}/proposals/latest").json()
    assert ultima["sequencia"] == 5
    assert ultima["observacao"] == "rodada 4"


def test_sem_propostas_latest_e_nulo(client, open_cart):
    pedido = open_cart()
    resp = client.get(f"/api/orders/{pedido['id']}/proposals/latest")
    assert resp.status_code == 200
    assert resp.json() is None


def test_proposta_com_versao_desatualizada(client, ref, open_cart):
    pedido_id = _cart_with_item(client, ref, open_cart)
    versao = client.get(f"/api/carts/{pedido_id}").json()["versao"]
    client.post(f"/api/carts/{pedido_id}/submit")

    resp = client.post(
        f"/api/orders/{pedido_id}/proposals",
        json={"lado_autor": "FORNECEDOR", "usuario_id": 900, "acao": "ACEITE", "versao_esperada": versao},
    )
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "CONCURRENCY_CONFLICT"
