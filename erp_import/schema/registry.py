from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from erp_import.models.schema_models import (
    CanonicalField,
    Destination,
    FieldKind,
    PrimitiveType,
    SchemaDefinition,
)

"""Static catalog of the destination schemas.

Field names are the column names of the destination tables, exactly as the
ERP labels them (Portuguese, with accents). Keywords are accent-free tokens
seen in export headers for the same data. Registry order (sales, customers,
catalog) breaks classification ties.
"""

__all__ = [
    "SCHEMAS",
    "all_schemas",
    "get_schema",
]

D = PrimitiveType.DATE
C = PrimitiveType.CURRENCY
N = PrimitiveType.NUMBER
T = PrimitiveType.TEXT


def _field(
    name: str,
    types: Iterable[PrimitiveType],
    keywords: Iterable[str],
    kind: FieldKind = FieldKind.TEXT,
    required: bool = False,
) -> CanonicalField:
    return CanonicalField(
        name=name,
        accepted_types=frozenset(types),
        keywords=frozenset(keywords),
        required=required,
        kind=kind,
    )


SALES = SchemaDefinition(
    destination=Destination.SALES,
    natural_key="Número da Nota Fiscal",
    fields=(
        _field("Número da Nota Fiscal", (T, N), ("numero", "nota", "nf", "fiscal"), required=True),
        _field("Data de Emissao da NF", (D,), ("data", "emissao", "nf", "nota"),
               kind=FieldKind.DATE, required=True),
        _field("Quantidade", (N,), ("quantidade", "qtd", "qtde"), kind=FieldKind.NUMBER),
        _field("Preço Unitário", (N, C), ("preco", "unitario", "valor", "unit"), kind=FieldKind.CURRENCY),
        _field("total", (N, C), ("total", "valor", "soma"), kind=FieldKind.CURRENCY),
        _field("Cód. Referência", (T,), ("codigo", "referencia", "sku")),
        _field("Descr. Produto", (T,), ("produto", "descricao", "item")),
        _field("Cod de Natureza de Operação", (T,), ("codigo", "natureza", "operacao", "cfop")),
        _field("Código Fiscal da Operação", (T,), ("codigo", "fiscal", "operacao", "cfop")),
        _field("TIPO", (T,), ("tipo",)),
        _field("Descr de Natureza de Operação", (T,), ("descricao", "natureza", "operacao")),
        _field("Cód. Subgrupo de Produto", (T,), ("codigo", "subgrupo", "produto")),
        _field("Desc. Subgrupo de Produto", (T,), ("descricao", "subgrupo", "produto")),
        _field("cdEmpresa", (N,), ("codigo", "empresa", "id")),
        _field("NomeEmpresa", (T,), ("nome", "empresa", "razao")),
        _field("Valor Icms Total", (N, C), ("valor", "icms", "total", "imposto"), kind=FieldKind.CURRENCY),
        _field("Valor do IPI", (N, C), ("valor", "ipi", "imposto"), kind=FieldKind.CURRENCY),
        _field("cdCli", (N, T), ("codigo", "cliente", "id"), kind=FieldKind.NUMBER),
        _field("NomeCli", (T,), ("nome", "cliente", "comprador")),
        _field("cdRepr", (N,), ("codigo", "representante", "vendedor"), kind=FieldKind.NUMBER),
        _field("NomeRepr", (T,), ("nome", "representante", "vendedor")),
        _field("Base de Calc Icms", (N, C), ("base", "calculo", "icms"), kind=FieldKind.CURRENCY),
        _field("VlrBaseICMSTotItem", (N, C), ("valor", "base", "icms", "total", "item"),
               kind=FieldKind.CURRENCY),
        _field("VlrIpiTotItem", (N, C), ("valor", "ipi", "total", "item"), kind=FieldKind.CURRENCY),
        _field("MARCA", (T,), ("marca", "fabricante")),
        _field("GRUPO", (T,), ("grupo", "categoria")),
        _field("CLIENTE + CIDADE", (T,), ("cliente", "cidade")),
        _field("CIDADE", (T,), ("cidade", "municipio", "local")),
        _field("cod. Referência + Descrição produto", (T,), ("codigo", "referencia", "descricao", "produto")),
    ),
)

CUSTOMERS = SchemaDefinition(
    destination=Destination.CUSTOMERS,
    natural_key="CNPJ",
    merge_field="Telefone",
    fields=(
        _field("Entidade", (N, T), ("entidade", "codigo", "id"), kind=FieldKind.NUMBER),
        _field("Nome", (T,), ("nome", "razao", "social", "cliente"), required=True),
        _field("CEP", (T,), ("cep", "postal")),
        _field("Município", (T,), ("cidade", "municipio")),
        _field("Sigla Estado", (T,), ("estado", "uf", "sigla")),
        _field("endereco", (T,), ("endereco", "rua", "avenida", "logradouro")),
        _field("Telefone", (T,), ("telefone", "fone", "contato", "celular")),
        _field("CNPJ", (T,), ("cnpj", "cpf", "documento"), kind=FieldKind.DOCUMENT),
        _field("InscrEst", (T,), ("inscricao", "estadual", "ie")),
        _field("C.N.A.E.", (T,), ("cnae", "atividade", "classificacao")),
    ),
)

CATALOG = SchemaDefinition(
    destination=Destination.CATALOG,
    natural_key="Cód. Referência",
    fields=(
        _field("Descr. Produto", (T,), ("produto", "descricao", "nome", "item"), required=True),
        _field("Cód. Referência", (T,), ("codigo", "referencia", "sku", "ref"), required=True),
        _field("Descr. Marca Produto", (T,), ("marca", "fabricante")),
        _field("Descr. Grupo Produto", (T,), ("grupo", "categoria")),
        _field("Desc. Subgrupo de Produto", (T,), ("subgrupo", "subcategoria")),
        _field("Descr. Resumo Produto", (T,), ("resumo", "breve")),
        _field("Cód. do Produto", (T,), ("codigo", "produto", "id")),
        _field("Compl. Cód. do Produto", (T,), ("complemento", "codigo")),
        _field("Faixa do ICMS", (T,), ("icms", "faixa", "imposto")),
        _field("Peso Bruto Kg", (N,), ("peso", "bruto", "kg"), kind=FieldKind.NUMBER),
        _field("Peso Liquido Kg", (N,), ("peso", "liquido", "kg"), kind=FieldKind.NUMBER),
        _field("Status Importado/Nacional", (T,), ("importado", "nacional", "origem")),
        _field("Status de Tipo de Produto", (T,), ("status", "tipo")),
        _field("Cód. Categoria de Grupo", (T,), ("codigo", "categoria", "grupo")),
        _field("Descr. Categoria de Grupo", (T,), ("descricao", "categoria")),
        _field("Cód. Subgrupo de Produto", (T,), ("codigo", "subgrupo")),
        _field("Cód. Grupo Produto", (T,), ("codigo", "grupo")),
        _field("Código Cat Prod", (T,), ("codigo", "categoria", "prod")),
        _field("Descr. Categoria de Prod", (T,), ("descricao", "categoria", "prod")),
        _field("N.B.M.", (T,), ("nbm", "ncm", "mercosul")),
        _field("Aliquota de IPI", (T, N), ("aliquota", "ipi")),
        _field("Cód. Marca Produtos", (T,), ("codigo", "marca")),
        _field("Cód. Conta Contábil Reduzida", (T,), ("codigo", "conta", "contabil")),
        _field("Descr. Conta Contabil", (T,), ("descricao", "conta", "contabil")),
        _field("cd_ctcResult", (T,), ("codigo", "resultado")),
        _field("ds_ctcResult", (T,), ("descricao", "resultado")),
        _field("Cód. Unidade de Medida", (T,), ("codigo", "unidade", "medida")),
        _field("Descr. Unidade de Medida", (T,), ("descricao", "unidade", "medida", "un")),
        _field("Código EAN 13", (T,), ("ean", "codigo", "barras")),
        _field("Largura", (N,), ("largura", "dimensao"), kind=FieldKind.NUMBER),
        _field("Altura", (N,), ("altura", "dimensao"), kind=FieldKind.NUMBER),
        _field("Comprimento", (N,), ("comprimento", "dimensao"), kind=FieldKind.NUMBER),
        _field("Detalhamento Técnico", (T,), ("detalhamento", "tecnico", "especificacao")),
    ),
)

SCHEMAS = MappingProxyType({
    Destination.SALES: SALES,
    Destination.CUSTOMERS: CUSTOMERS,
    Destination.CATALOG: CATALOG,
})


def get_schema(destination: Destination | str) -> SchemaDefinition:
    return SCHEMAS[Destination(destination)]


def all_schemas() -> tuple[SchemaDefinition, ...]:
    return tuple(SCHEMAS.values())
