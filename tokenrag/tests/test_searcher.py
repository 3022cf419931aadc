"""
Tests for hybrid ranking and identifier search.
"""

from unittest.mock import AsyncMock, Mock

import pytest


def _result(id, score, content, parent="p", chunk=0, name="", symbol=""):
    from tokenrag.common.schemas import SimilarityResult
    return SimilarityResult(
        id=id,
        score=score,
        content=content,
        metadata={"entity_id": parent, "chunk_index": chunk, "entity_name": name, "entity_symbol": symbol},
    )


@pytest.fixture
def vector_index():
    index = Mock()
    index.query_similar = AsyncMock(return_value=[])
    index.query_by_field = AsyncMock(return_value=[])
    return index


@pytest.fixture
def embedding():
    svc = Mock()
    svc.embed_single = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return svc


class TestHybridRanker:
    @pytest.mark.asyncio
    async def test_keyword_boost_example(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        vector_index.query_similar.return_value = [
            _result("a", 0.75, "Token: Bitcoin (BTC)"),
            _result("b", 0.60, "Token: Ethereum (ETH)"),
        ]
        ranker = HybridRanker(vector_index)

        results = await ranker.rank([0.1], "BTC price today", top_k=2)

        assert [r.id for r in results] == ["a", "b"]
        assert results[0].score == pytest.approx(0.85)
        assert results[1].score == pytest.approx(0.60)
        vector_index.query_similar.assert_awaited_once_with([0.1], top_k=4)

    @pytest.mark.asyncio
    async def test_each_matching_keyword_adds_boost(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        vector_index.query_similar.return_value = [
            _result("a", 0.5, "Token: Bitcoin (BTC) Price: $45000"),
        ]

        results = await HybridRanker(vector_index).rank([0.1], "BTC price today", top_k=1)

        assert results[0].score == pytest.approx(0.7)

    def test_short_tokens_ignored_and_duplicates_count(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        ranker = HybridRanker(vector_index)
        [boosted] = ranker.boost([_result("a", 0.1, "is of btc")], "is of btc btc")

        assert boosted.score == pytest.approx(0.3)

    def test_boost_reorders_and_clamps(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        ranker = HybridRanker(vector_index)
        results = ranker.boost(
            [
                _result("semantic", 0.9, "nothing relevant"),
                _result("lexical", 0.7, "solana price chart volume"),
            ],
            "solana price chart volume",
        )

        assert [r.id for r in results] == ["lexical", "semantic"]
        assert results[0].score == 1.0

    def test_boosted_score_bounds(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        originals = [_result(str(i), s, "alpha beta gamma") for i, s in enumerate([0.0, 0.4, 0.95, 1.0])]
        boosted = HybridRanker(vector_index).boost(originals, "alpha gamma delta")

        by_id = {r.id: r.score for r in boosted}
        for original in originals:
            assert original.score <= by_id[original.id] <= 1.0

    def test_stable_for_equal_scores(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        results = HybridRanker(vector_index).boost(
            [_result("first", 0.5, "x"), _result("second", 0.5, "y")], "zzz"
        )
        assert [r.id for r in results] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_rank_truncates_to_top_k(self, vector_index):
        from tokenrag.retriever.searcher import HybridRanker

        vector_index.query_similar.return_value = [_result(str(i), 0.5 - i / 100, "x") for i in range(6)]

        results = await HybridRanker(vector_index).rank([0.1], "query", top_k=3)
        assert [r.id for r in results] == ["0", "1", "2"]


class TestSearcher:
    @pytest.mark.asyncio
    async def test_search_embeds_query_and_ranks(self, embedding, vector_index):
        from tokenrag.retriever.searcher import Searcher

        vector_index.query_similar.return_value = [_result("a", 0.5, "bitcoin")]
        searcher = Searcher(embedding, vector_index, topk=5)

        results = await searcher.search("bitcoin supply")

        embedding.embed_single.assert_awaited_once_with("bitcoin supply")
        vector_index.query_similar.assert_awaited_once_with([0.1, 0.2, 0.3], top_k=10)
        assert results[0].score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_search_accepts_parsed_query(self, embedding, vector_index):
        from tokenrag.retriever.query_processor import QueryProcessor
        from tokenrag.retriever.searcher import Searcher

        searcher = Searcher(embedding, vector_index)
        await searcher.search(QueryProcessor().parse("  what   is  BTC "), topk=3)

        embedding.embed_single.assert_awaited_once_with("what is BTC")

    @pytest.mark.asyncio
    async def test_explicit_zero_topk_is_not_default(self, embedding, vector_index):
        from tokenrag.retriever.searcher import Searcher

        vector_index.query_similar.return_value = [_result("a", 0.5, "bitcoin")]
        searcher = Searcher(embedding, vector_index, topk=5)

        assert await searcher.search("bitcoin", topk=0) == []
        vector_index.query_similar.assert_not_called()

    @pytest.mark.asyncio
    async def test_identifier_matches_symbol_first(self, embedding, vector_index):
        from tokenrag.retriever.searcher import Searcher

        hit = _result("bitcoin-btc-chunk-0", 0.0, "Token: Bitcoin (BTC)")
        vector_index.query_by_field.return_value = [hit]

        results = await Searcher(embedding, vector_index).search_by_identifier("btc")

        assert results == [hit]
        vector_index.query_by_field.assert_awaited_once_with("entity_symbol", "BTC")
        embedding.embed_single.assert_not_called()

    @pytest.mark.asyncio
    async def test_identifier_falls_back_to_id(self, embedding, vector_index):
        from tokenrag.retriever.searcher import Searcher

        hit = _result("bitcoin-btc-chunk-0", 0.0, "Token: Bitcoin (BTC)")
        vector_index.query_by_field.side_effect = [[], [hit]]

        results = await Searcher(embedding, vector_index).search_by_identifier("bitcoin-btc")

        assert results == [hit]
        assert vector_index.query_by_field.await_args_list[1].args == ("entity_id", "bitcoin-btc")

    @pytest.mark.asyncio
    async def test_identifier_without_any_match_is_empty(self, embedding, vector_index):
        from tokenrag.retriever.searcher import Searcher

        results = await Searcher(embedding, vector_index).search_by_identifier("XYZ")

        assert results == []
        embedding.embed_single.assert_awaited_once_with("XYZ")
        vector_index.query_similar.assert_awaited_once_with([0.1, 0.2, 0.3], top_k=10)

    @pytest.mark.asyncio
    async def test_blank_identifier_rejected(self, embedding, vector_index):
        from tokenrag.common.errors import ValidationError
        from tokenrag.retriever.searcher import Searcher

        with pytest.raises(ValidationError):
            await Searcher(embedding, vector_index).search_by_identifier("  ")
        vector_index.query_by_field.assert_not_called()
