#!/usr/bin/env python
from collections.abc import Iterable
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from davcal.lib.namespace import nsmap as default_nsmap
from davcal.lib.python_utilities import to_unicode


class BaseElement:
    children: Optional[List["BaseElement"]] = None
    tag: ClassVar[Optional[str]] = None
    value: Optional[str] = None
    attributes: Optional[dict] = None

    def __init__(
        self, name: Optional[str] = None, value: Union[str, bytes, None] = None
    ) -> None:
        self.children = []
        self.attributes = {}
        value = to_unicode(value)
        self.value = None
        if name is not None:
            self.attributes["name"] = name
        if value is not None:
            self.value = value

    def __add__(
        self, other: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        return self.append(other)

    def __str__(self) -> str:
        utf8 = etree.tostring(
            self.xmlelement(), encoding="utf-8", xml_declaration=True, pretty_print=True
        )
        return str(utf8, "utf-8")

    def xmlelement(self, nsmap: Optional[Dict[str, str]] = None) -> _Element:
        if self.tag is None:
            raise ValueError("Unexpected value None for self.tag")

        if self.attributes is None:
            raise ValueError("Unexpected value None for self.attributes")

        nsmap = nsmap or default_nsmap
        root = etree.Element(self.tag, nsmap=nsmap)
        if self.value is not None:
            root.text = self.value

        for k in self.attributes:
            root.set(k, self.attributes[k])

        self.xmlchildren(root, nsmap)
        return root

    def xmlchildren(self, root: _Element, nsmap: Dict[str, str]) -> None:
        if self.children is None:
            raise ValueError("Unexpected value None for self.children")

        for c in self.children:
            root.append(c.xmlelement(nsmap))

    def tostring(self, nsmap: Optional[Dict[str, str]] = None) -> bytes:
        """Serialize to an utf-8 request body with xml declaration"""
        return etree.tostring(
            self.xmlelement(nsmap), encoding="utf-8", xml_declaration=True
        )

    def append(
        self, element: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        if self.children is None:
            raise ValueError("Unexpected value None for self.children")

        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)

        return self


class NamedBaseElement(BaseElement):
    def __init__(self, name: Optional[str] = None) -> None:
        super(NamedBaseElement, self).__init__(name=name)

    def xmlelement(self, nsmap: Optional[Dict[str, str]] = None) -> _Element:
        if self.attributes.get("name") is None:
            raise Exception("name attribute must be defined")
        return super(NamedBaseElement, self).xmlelement(nsmap)


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super(ValuedBaseElement, self).__init__(value=value)
