from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from buildtrack.domain.errors import NotFoundError, ValidationError
from buildtrack.domain.models import (
    DepartmentSupervisor,
    Role,
    RoleAssignmentCreate,
    User,
    UserCreate,
    UserRole,
    now_utc,
)
from buildtrack.domain.roles import (
    DEFAULT_ROLE_LEVELS,
    SYSTEM_ROLE_DESCRIPTIONS,
    RoleAssignment,
    RoleKind,
)
from buildtrack.infra.db import get_engine


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_user(self, session: Session, user_id: str) -> User:
        row = session.exec(select(User).where(User.id == user_id)).first()
        if row is None:
            raise NotFoundError("user", user_id)
        return row

    def ensure_system_roles(self, session: Session) -> dict[RoleKind, Role]:
        existing = {item.kind: item for item in session.exec(select(Role)).all()}
        created: list[Role] = []
        for kind, level in DEFAULT_ROLE_LEVELS.items():
            if kind in existing:
                continue
            role = Role(
                kind=kind,
                name=kind.value,
                level=level,
                description=SYSTEM_ROLE_DESCRIPTIONS[kind],
                is_system_role=True,
            )
            session.add(role)
            created.append(role)
            existing[kind] = role
        if created:
            session.flush()
        return existing

    def create_user(self, payload: UserCreate) -> User:
        with self._session() as session:
            row = User(
                email=payload.email.strip().lower(),
                full_name=payload.full_name,
                organization_id=payload.organization_id,
                is_active=payload.is_active,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ValidationError(f"user email {row.email} already exists", field="email") from exc
            session.refresh(row)
            return row

    def list_users(self, *, organization_id: str | None = None) -> list[User]:
        with self._session() as session:
            statement = select(User)
            if organization_id is not None:
                statement = statement.where(User.organization_id == organization_id)
            return list(session.exec(statement).all())

    def list_roles(self) -> list[Role]:
        with self._session() as session:
            roles = self.ensure_system_roles(session)
            session.commit()
            return sorted(roles.values(), key=lambda item: item.level)

    def assign_role(self, user_id: str, payload: RoleAssignmentCreate) -> UserRole:
        with self._session() as session:
            self._get_user(session, user_id)
            role = self.ensure_system_roles(session)[payload.role_kind]
            rows = session.exec(
                select(UserRole)
                .where(UserRole.user_id == user_id)
                .where(UserRole.role_id == role.id)
                .where(col(UserRole.is_active).is_(True))
            ).all()
            existing = next(
                (
                    item
                    for item in rows
                    if item.project_id == payload.project_id and item.organization_id == payload.organization_id
                ),
                None,
            )
            if existing is not None:
                session.commit()
                return existing
            row = UserRole(
                user_id=user_id,
                role_id=role.id,
                project_id=payload.project_id,
                organization_id=payload.organization_id,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def revoke_role_assignment(self, user_id: str, assignment_id: str) -> UserRole:
        with self._session() as session:
            row = session.exec(
                select(UserRole).where(UserRole.id == assignment_id).where(UserRole.user_id == user_id)
            ).first()
            if row is None:
                raise NotFoundError("role assignment", assignment_id)
            if row.is_active:
                row.is_active = False
                row.deactivated_at = now_utc()
                session.add(row)
                session.commit()
                session.refresh(row)
            return row

    def list_role_assignment_rows(self, user_id: str) -> list[UserRole]:
        with self._session() as session:
            self._get_user(session, user_id)
            return list(session.exec(select(UserRole).where(UserRole.user_id == user_id)).all())

    def get_active_role_assignments(self, session: Session, user_id: str) -> list[RoleAssignment]:
        rows = session.exec(
            select(UserRole, Role)
            .where(UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .where(col(UserRole.is_active).is_(True))
        ).all()
        return [
            RoleAssignment(
                role_kind=role.kind,
                level=role.level,
                project_id=assignment.project_id,
                organization_id=assignment.organization_id,
            )
            for assignment, role in rows
        ]

    def is_department_supervisor(self, session: Session, user_id: str, department_id: str) -> bool:
        row = session.exec(
            select(DepartmentSupervisor)
            .where(DepartmentSupervisor.department_id == department_id)
            .where(DepartmentSupervisor.supervisor_id == user_id)
        ).first()
        return row is not None
