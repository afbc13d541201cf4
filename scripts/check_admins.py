import sys

from apps.backend.services.admin_bootstrap import StoreUnavailableError, list_admins


def main() -> int:
    try:
        admins = list_admins()
    except StoreUnavailableError as exc:
        print(f"Ошибка: {exc}", file=sys.stderr)
        return exc.exit_code
    print(f"Найдено админов: {len(admins)}")
    for i, a in enumerate(admins, 1):
        print(f"{i}. {a['first_name'] or ''} {a['last_name'] or ''}".rstrip())
        print(f"   Email: {a['email']}")
        print(f"   Роль: {a['role']}")
        print(f"   Активен: {a['is_active']}")
        print(f"   Пароль задан: {a['has_password']}")
        print(f"   ID: {a['id']}")
        print("---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
