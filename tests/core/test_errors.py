"""Error Hierarchy & Envelopes — tests for the uniform {message, code, type} shape.

Tests cover:
    - Built-in errors carry the documented message, code, type, http_status
    - to_response / envelope to_dict wire shapes (sn omitted when None)
    - envelope_from_dict rebuilds both shapes
    - Send and broadcast reports
"""

from lightrpc.core.envelope import (
    MSG_ACK, ApiFailure, ApiSuccess, BroadcastResult, ConnectionSendReport,
    ErrorInfo, SendResult, envelope_from_dict,
)
from lightrpc.core.errors import (
    ConnectionNotFoundError, ErrorCode, ErrorType, FlowCanceledError,
    HandlerNotFoundError, InternalError, InvalidInputError, InvalidRequestError,
    RpcError, transport_error_response,
)


def test_rpc_error_defaults_to_server_error():
    err = RpcError("boom")
    assert err.code == "SERVER_ERROR"
    assert err.type == "ServerError"
    assert err.http_status == 500


def test_rpc_error_accepts_custom_codes():
    err = RpcError("Out of stock", code="OUT_OF_STOCK", type="ClientError", http_status=409)
    assert err.to_error_info() == ErrorInfo("Out of stock", "OUT_OF_STOCK", "ClientError")


def test_invalid_request_is_client_error():
    err = InvalidRequestError("math/add")
    assert err.message == "Invalid request data for API: math/add"
    assert err.code == ErrorCode.INVALID_REQUEST
    assert err.type == ErrorType.CLIENT
    assert err.http_status == 400


def test_handler_not_found_message():
    err = HandlerNotFoundError("user/delete")
    assert err.message == "No handler found for API: user/delete"
    assert err.code == "HANDLER_NOT_FOUND"


def test_flow_canceled_message_with_reason():
    assert FlowCanceledError("API call", "pre_api_call").message == (
        "API call canceled by pre_api_call flow"
    )
    assert FlowCanceledError("API call", "pre_api_call", "quota").message == (
        "API call canceled by pre_api_call flow: quota"
    )


def test_internal_error_never_empty():
    assert InternalError("").message == "Internal server error"


def test_connection_not_found_is_404():
    err = ConnectionNotFoundError("ws_1")
    assert err.http_status == 404
    assert err.message == "Connection not found: ws_1"


def test_to_response_includes_sn_only_when_given():
    err = InvalidInputError()
    assert err.to_response() == {
        "isSucc": False,
        "err": {"message": "Invalid input format", "code": "INVALID_INPUT", "type": "ClientError"},
    }
    assert err.to_response(sn=3)["sn"] == 3


def test_transport_error_response_uses_status_as_code():
    assert transport_error_response(413, "Request body too large") == {
        "isSucc": False,
        "err": {"message": "Request body too large", "code": "413", "type": "ServerError"},
    }


def test_success_envelope_wire_shape():
    assert ApiSuccess(res={"result": 30}).to_dict() == {"isSucc": True, "res": {"result": 30}}
    assert ApiSuccess(res=None, sn=4).to_dict() == {"isSucc": True, "res": None, "sn": 4}


def test_with_sn_returns_new_envelope():
    failure = ApiFailure(ErrorInfo("m", "c", "ServerError"))
    stamped = failure.with_sn(9)
    assert stamped.sn == 9
    assert failure.sn is None
    assert stamped.is_succ is False


def test_envelope_from_dict_rebuilds_both_shapes():
    assert envelope_from_dict({"isSucc": True, "res": 1, "sn": 2}) == ApiSuccess(res=1, sn=2)
    failure = envelope_from_dict({"isSucc": False, "err": {"message": "m", "code": "c", "type": "t"}})
    assert failure == ApiFailure(ErrorInfo("m", "c", "t"))


def test_send_result_wire_shape():
    assert SendResult(True).to_dict() == {"isSucc": True}
    assert SendResult(False, "nope").to_dict() == {"isSucc": False, "errMsg": "nope"}


def test_broadcast_result_counts_failures():
    result = BroadcastResult(
        is_succ=False,
        err_msg="1 connections failed to receive message",
        results=[
            ConnectionSendReport("a", True),
            ConnectionSendReport("b", False, "closed"),
        ],
    )
    assert result.failed_count == 1
    assert result.to_dict()["results"][1] == {"connId": "b", "success": False, "error": "closed"}


def test_msg_ack():
    assert MSG_ACK == {"success": True}
