import json

import pytest

from pricefeed.tendermint import get_block_height


def _new_block(height):
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "id": 0,
            "result": {
                "query": "tm.event='NewBlock'",
                "data": {
                    "type": "tendermint/event/NewBlock",
                    "value": {
                        "block": {
                            "header": {"chain_id": "vsc-localnet-0", "height": height},
                            "data": {"txs": []},
                        }
                    },
                },
            },
        }
    ).encode()


def test_reads_height_from_new_block():
    assert get_block_height(_new_block("12345")) == 12345


def test_accepts_text_message():
    assert get_block_height(_new_block("77").decode()) == 77


def test_subscription_ack_has_no_height():
    assert get_block_height(b'{"jsonrpc":"2.0","id":0,"result":{}}') == 0


def test_empty_height_is_zero():
    assert get_block_height(_new_block("")) == 0


def test_largest_uint64_accepted():
    top = str(2**64 - 1)
    assert get_block_height(_new_block(top)) == int(top)


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        get_block_height(b"not json")


@pytest.mark.parametrize("height", ["abc", "-5", "+5", "1.5", str(2**64)])
def test_bad_height_raises(height):
    with pytest.raises(ValueError):
        get_block_height(_new_block(height))


def test_numeric_height_raises():
    with pytest.raises(ValueError):
        get_block_height(_new_block(10))


def test_non_object_result_raises():
    with pytest.raises(ValueError):
        get_block_height(b'{"result": []}')