# Unique sql aliases for the joins of a single query
from typing import Dict, Optional, Tuple

from .metadata import RelationMeta


class AliasHandler:
    """
    Maps (table name, relation name) to an sql alias, eg. ("user", "role") => "user_role_1".
    A new instance is used for each query builder.
    """

    def __init__(self) -> None:
        self.aliases: Dict[str, int] = {}

    @staticmethod
    def get_alias_key(entity_table_name: str, prop_name: str) -> str:
        return f"{entity_table_name}.{prop_name}"

    def generate(self, entity_table_name: str, prop_name: str) -> str:
        """
        Append the number of occurences to the alias to avoid ambiguous sql names
        """
        key = self.get_alias_key(entity_table_name, prop_name)
        self.aliases[key] = self.aliases.get(key, 0) + 1
        return self.get_property_last_alias(entity_table_name, prop_name)

    def get_property_last_alias(self, entity_table_name: str, prop_name: str) -> str:
        last_alias = self.aliases.get(self.get_alias_key(entity_table_name, prop_name))
        suffix = f"_{last_alias}" if last_alias else ""
        return f"{entity_table_name}_{prop_name}{suffix}"

    @staticmethod
    def is_join_already_made(qb, relation: RelationMeta, prev_alias: Optional[str] = None):
        """
        :return: the join of `relation` from `prev_alias` (default: the relation owner table) if it was made already
        """
        entity_or_property = f"{prev_alias or relation.owner_table_name}.{relation.property_name}"
        for join in qb.joins:
            if join.entity_or_property == entity_or_property:
                return join
        return None

    def get_alias_for_relation(self, qb, relation: RelationMeta, prev_alias: Optional[str] = None) -> Tuple[bool, str]:
        """
        :return: whether the join was already made and the alias to use for the relation
        """
        join = self.is_join_already_made(qb, relation, prev_alias)
        if join is not None:
            return True, join.alias
        return False, self.generate(relation.owner_table_name, relation.property_name)
