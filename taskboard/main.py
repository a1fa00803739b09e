import logging
from contextlib import asynccontextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .access import Role
from .auth import get_current_user
from .boards import BoardManager
from .config import Settings, get_settings
from .db import Board, BoardList, BoardMember, Card, Database, User
from .errors import InternalError, TaskboardError
from .identity import IdentityService
from .schemas import (
    AuthOut,
    BoardCreate,
    BoardOut,
    BoardUpdate,
    CardCreate,
    CardOut,
    CardReorder,
    CardUpdate,
    Health,
    ListIn,
    ListOut,
    ListReorder,
    LoginIn,
    MemberIn,
    MemberOut,
    MemberPatch,
    MembersOut,
    Message,
    RegisterIn,
    UserOut,
    Version,
)
from .storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# === Dependencies ===


def get_session(request: Request) -> Iterator[Session]:
    with request.app.state.database.session() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity(
    session: Session = Depends(get_session), settings: Settings = Depends(get_app_settings)
) -> IdentityService:
    return IdentityService(session, settings)


def get_boards(
    session: Session = Depends(get_session), settings: Settings = Depends(get_app_settings)
) -> BoardManager:
    return BoardManager(session, settings)


def get_storage(session: Session = Depends(get_session)) -> Storage:
    return Storage(session)


# === Helpers ===


def user_out(user: User) -> UserOut:
    return UserOut(id=user.id, name=user.name, email=user.email)


def board_out(board: Board, role: Role) -> BoardOut:
    return BoardOut(
        id=board.id,
        title=board.title,
        slug=board.slug,
        background=board.background,
        userId=board.user_id,
        role=role.value,
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


def member_out(member: BoardMember) -> MemberOut:
    return MemberOut(
        id=member.id,
        boardId=member.board_id,
        userId=member.user_id,
        role=member.role,
        user=user_out(member.user),
        createdAt=member.created_at,
        updatedAt=member.updated_at,
    )


def list_out(board_list: BoardList) -> ListOut:
    return ListOut(
        id=board_list.id,
        boardId=board_list.board_id,
        title=board_list.title,
        position=board_list.position,
        createdAt=board_list.created_at,
        updatedAt=board_list.updated_at,
    )


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        boardId=card.board_id,
        listId=card.list_id,
        title=card.title,
        description=card.description or "",
        position=card.position,
        labels=card.labels or [],
        dueDate=card.due_date,
        checklist=card.checklist or [],
        comments=card.comments or [],
        createdAt=card.created_at,
        updatedAt=card.updated_at,
    )


# === Health & metadata ===


@router.get("/health", response_model=Health)
def health():
    return Health()


@router.get("/version", response_model=Version)
def version(settings: Settings = Depends(get_app_settings)):
    return Version(version=settings.app_version)


# === Auth endpoints ===


@router.post("/auth/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterIn, identity: IdentityService = Depends(get_identity)):
    token, user = identity.register(payload.name, payload.email, payload.password)
    return AuthOut(token=token, user=user_out(user))


@router.post("/auth/login", response_model=AuthOut)
def login(payload: LoginIn, identity: IdentityService = Depends(get_identity)):
    token, user = identity.login(payload.email, payload.password)
    return AuthOut(token=token, user=user_out(user))


@router.get("/auth/me", response_model=UserOut)
def me(user: str = Depends(get_current_user), identity: IdentityService = Depends(get_identity)):
    return user_out(identity.get_self(user))


# === Board endpoints ===


@router.get("/boards", response_model=List[BoardOut])
def list_boards(user: str = Depends(get_current_user), boards: BoardManager = Depends(get_boards)):
    return [board_out(board, role) for board, role in boards.list_boards_for(user)]


@router.post("/boards", response_model=BoardOut, status_code=201)
def create_board(
    payload: BoardCreate,
    user: str = Depends(get_current_user),
    boards: BoardManager = Depends(get_boards),
):
    board = boards.create_board(user, payload.title, payload.background)
    return board_out(board, Role.OWNER)


@router.get("/boards/{board_ref}", response_model=BoardOut)
def get_board(board_ref: str, user: str = Depends(get_current_user), boards: BoardManager = Depends(get_boards)):
    access = boards.get_board(board_ref, user)
    return board_out(access.board, access.role)


@router.put("/boards/{board_ref}", response_model=BoardOut)
def update_board(
    board_ref: str,
    payload: BoardUpdate,
    user: str = Depends(get_current_user),
    boards: BoardManager = Depends(get_boards),
):
    access = boards.update_board(board_ref, user, title=payload.title, background=payload.background)
    return board_out(access.board, access.role)


@router.delete("/boards/{board_ref}", response_model=Message)
def delete_board(board_ref: str, user: str = Depends(get_current_user), boards: BoardManager = Depends(get_boards)):
    boards.delete_board(board_ref, user)
    return Message(message="Board deleted")


# === Member endpoints ===


@router.get("/boards/{board_ref}/members", response_model=MembersOut)
def list_members(board_ref: str, user: str = Depends(get_current_user), boards: BoardManager = Depends(get_boards)):
    owner, members = boards.list_members(board_ref, user)
    return MembersOut(
        owner=user_out(owner) if owner is not None else None,
        members=[member_out(m) for m in members],
    )


@router.post("/boards/{board_ref}/members", response_model=MemberOut, status_code=201)
def invite_member(
    board_ref: str,
    payload: MemberIn,
    user: str = Depends(get_current_user),
    boards: BoardManager = Depends(get_boards),
):
    member = boards.invite_member(board_ref, user, payload.email, payload.role)
    return member_out(member)


@router.put("/boards/{board_ref}/members/{member_id}", response_model=MemberOut)
def change_member_role(
    board_ref: str,
    member_id: str,
    payload: MemberPatch,
    user: str = Depends(get_current_user),
    boards: BoardManager = Depends(get_boards),
):
    member = boards.change_role(board_ref, user, member_id, payload.role)
    return member_out(member)


@router.delete("/boards/{board_ref}/members/{member_id}", response_model=Message)
def remove_member(
    board_ref: str,
    member_id: str,
    user: str = Depends(get_current_user),
    boards: BoardManager = Depends(get_boards),
):
    boards.remove_member(board_ref, user, member_id)
    return Message(message="Member removed")


# === List endpoints ===


@router.get("/boards/{board_ref}/lists", response_model=List[ListOut])
def list_lists(board_ref: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return [list_out(board_list) for board_list in storage.list_lists(board_ref, user)]


@router.post("/boards/{board_ref}/lists", response_model=ListOut, status_code=201)
def create_list(
    board_ref: str,
    payload: ListIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return list_out(storage.create_list(board_ref, user, payload.title))


@router.put("/lists/{list_id}", response_model=ListOut)
def rename_list(
    list_id: str,
    payload: ListIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return list_out(storage.rename_list(list_id, user, payload.title))


@router.delete("/lists/{list_id}", response_model=Message)
def delete_list(list_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_list(list_id, user)
    return Message(message="List deleted")


# === Card endpoints ===


@router.get("/boards/{board_ref}/cards", response_model=List[CardOut])
def list_cards(board_ref: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return [card_out(card) for card in storage.list_cards(board_ref, user)]


@router.post("/lists/{list_id}/cards", response_model=CardOut, status_code=201)
def create_card(
    list_id: str,
    payload: CardCreate,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return card_out(storage.create_card(list_id, user, payload.title, payload.description))


@router.get("/cards/{card_id}", response_model=CardOut)
def get_card(card_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return card_out(storage.get_card(card_id, user))


@router.put("/cards/{card_id}", response_model=CardOut)
def update_card(
    card_id: str,
    payload: CardUpdate,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    changes = payload.model_dump(exclude_unset=True)
    if "dueDate" in changes:
        changes["due_date"] = changes.pop("dueDate")
    return card_out(storage.update_card(card_id, user, **changes))


@router.delete("/cards/{card_id}", response_model=Message)
def delete_card(card_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_card(card_id, user)
    return Message(message="Card deleted")


# === Reorder endpoints ===


@router.put("/list-reorder", response_model=Message)
def reorder_lists(payload: ListReorder, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.reorder_lists(user, payload.listIds, board_ref=payload.boardId)
    return Message(message="Lists reordered")


@router.put("/card-reorder", response_model=Message)
def reorder_cards(payload: CardReorder, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.reorder_cards(
        user,
        payload.sourceListId,
        payload.destListId,
        payload.sourceCardIds,
        payload.destCardIds,
        board_ref=payload.boardId,
    )
    return Message(message="Cards reordered")


# === Error handlers ===


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def handle_taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
    return _message(exc.status_code, exc.message)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _message(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    detail = first.get("msg", "invalid value")
    return _message(400, f"{field}: {detail}" if field else detail)


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Write rejected by a uniqueness constraint on %s %s", request.method, request.url.path)
    return _message(409, "Conflicting update, please retry")


async def handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    error = InternalError(str(exc))
    return _message(error.status_code, error.message)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalError("Internal server error")
    return _message(error.status_code, error.message)


# === Application ===


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    database = database or Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        database.create_all()
        with database.session() as session:
            BoardManager(session, settings).backfill_slugs()
        logger.info("%s %s ready", settings.app_name, settings.app_version)
        yield
        database.dispose()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TaskboardError, handle_taskboard_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(SQLAlchemyError, handle_storage_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


app = create_app()
